"""
Network server module.

Receives positioning requests from devices over TCP and answers each one.
Every message, in both directions, is a 4-byte big-endian length prefix
followed by UTF-8 JSON.
"""

import socket
import json
import threading
import logging
from typing import Optional, Dict, Callable, List

logger = logging.getLogger(__name__)

LENGTH_PREFIX_BYTES = 4


def encode_frame(message: Dict) -> bytes:
    """
    Serialize a message as length prefix + JSON.

    Raises:
        ValueError: If the message holds NaN or infinity (not valid JSON)
    """
    data = json.dumps(message, allow_nan=False).encode('utf-8')
    return len(data).to_bytes(LENGTH_PREFIX_BYTES, byteorder='big') + data


class FrameDecoder:
    """
    Incremental decoder for length-prefixed frames.

    Feed raw bytes as they arrive; complete frame payloads come out in order.
    """

    def __init__(self, max_message_bytes: int = 1 << 20):
        self.max_message_bytes = max_message_bytes
        self._buffer = b''

    def feed(self, data: bytes) -> List[bytes]:
        """
        Add received bytes and return all complete payloads.

        Raises:
            ValueError: If a frame announces more than max_message_bytes
        """
        self._buffer += data
        payloads = []

        while len(self._buffer) >= LENGTH_PREFIX_BYTES:
            msg_length = int.from_bytes(self._buffer[:LENGTH_PREFIX_BYTES], byteorder='big')
            if msg_length > self.max_message_bytes:
                raise ValueError(f"Frame too large: {msg_length} bytes")

            if len(self._buffer) < LENGTH_PREFIX_BYTES + msg_length:
                break  # incomplete, wait for more data

            payloads.append(self._buffer[LENGTH_PREFIX_BYTES:LENGTH_PREFIX_BYTES + msg_length])
            self._buffer = self._buffer[LENGTH_PREFIX_BYTES + msg_length:]

        return payloads


class RequestServer:
    """
    TCP request/response server.

    Each client connection gets its own thread. Every decoded request is
    passed to request_handler, and the returned dict is sent back as one
    frame. A payload that is not valid JSON is answered with status 400, and
    a handler error or unencodable response with status 500.
    """

    def __init__(
        self,
        host: str,
        port: int,
        request_handler: Callable[[Dict], Dict],
        backlog: int = 5,
        max_message_bytes: int = 1 << 20,
    ):
        """
        Args:
            host: Listen address
            port: Listen port (0 picks a free port, see self.port after start)
            request_handler: Maps a request dict to a response dict
            backlog: Listen backlog
            max_message_bytes: Largest accepted request frame
        """
        self.host = host
        self.port = port
        self.request_handler = request_handler
        self.backlog = backlog
        self.max_message_bytes = max_message_bytes
        self.server_socket: Optional[socket.socket] = None
        self.running = False
        self.clients: List[socket.socket] = []
        self._clients_lock = threading.Lock()
        self.accept_thread: Optional[threading.Thread] = None

    def start(self) -> bool:
        """Start listening; returns False if the socket cannot be bound."""
        try:
            self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.server_socket.bind((self.host, self.port))
            self.server_socket.listen(self.backlog)
            self.server_socket.settimeout(1.0)
            self.port = self.server_socket.getsockname()[1]

            self.running = True
            self.accept_thread = threading.Thread(target=self._accept_loop, daemon=True)
            self.accept_thread.start()

            logger.info(f"Server listening on {self.host}:{self.port}")
            return True

        except OSError as e:
            logger.error(f"Failed to start server: {e}")
            return False

    def stop(self):
        """Stop the server and close all client connections."""
        self.running = False

        with self._clients_lock:
            clients = list(self.clients)
            self.clients.clear()
        for client in clients:
            try:
                client.close()
            except OSError:
                pass

        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError:
                pass

        if self.accept_thread is not None:
            self.accept_thread.join(timeout=2.0)

        logger.info("Server stopped")

    def _accept_loop(self):
        while self.running:
            try:
                client_socket, address = self.server_socket.accept()
                logger.info(f"Client connected: {address}")
                with self._clients_lock:
                    self.clients.append(client_socket)

                client_thread = threading.Thread(
                    target=self._handle_client,
                    args=(client_socket, address),
                    daemon=True
                )
                client_thread.start()

            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"Accept failed: {e}")

    def _handle_client(self, client_socket: socket.socket, address):
        decoder = FrameDecoder(self.max_message_bytes)

        try:
            client_socket.settimeout(1.0)
            while self.running:
                try:
                    data = client_socket.recv(4096)
                except socket.timeout:
                    continue

                if not data:
                    logger.info(f"Client disconnected: {address}")
                    break

                for payload in decoder.feed(data):
                    client_socket.sendall(self._respond(payload))

        except ValueError as e:
            logger.warning(f"Closing {address}: {e}")
        except OSError as e:
            if self.running:
                logger.error(f"Client {address} error: {e}")
        finally:
            with self._clients_lock:
                if client_socket in self.clients:
                    self.clients.remove(client_socket)
            try:
                client_socket.close()
            except OSError:
                pass

    def _respond(self, payload: bytes) -> bytes:
        """Encoded response frame for one request; failures become status 500."""
        try:
            return encode_frame(self._dispatch(payload))
        except Exception as e:
            logger.exception(f"Request handling failed: {e}")
            return encode_frame({"status": 500, "body": {"error": "internal server error"}})

    def _dispatch(self, payload: bytes) -> Dict:
        try:
            message = json.loads(payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"JSON parse failed: {e}")
            return {"status": 400, "body": {"error": "invalid JSON"}}
        return self.request_handler(message)


class LocationClient:
    """
    Blocking client for RequestServer.

    Usage:
        with LocationClient("127.0.0.1", 3000) as client:
            response = client.request({"type": "health"})
    """

    def __init__(self, host: str, port: int, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket: Optional[socket.socket] = None
        self._decoder = FrameDecoder()

    def connect(self):
        self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)

    def close(self):
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None

    def __enter__(self) -> 'LocationClient':
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def request(self, message: Dict) -> Dict:
        """
        Send one request and wait for its response.

        Raises:
            ConnectionError: If the server closes the connection first
        """
        if self.socket is None:
            self.connect()

        self.socket.sendall(encode_frame(message))
        while True:
            data = self.socket.recv(4096)
            if not data:
                raise ConnectionError("Server closed connection")
            payloads = self._decoder.feed(data)
            if payloads:
                return json.loads(payloads[0].decode('utf-8'))
