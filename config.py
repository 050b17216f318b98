"""
Wi-Fi positioning server configuration.
"""

# Server configuration
SERVER_CONFIG = {
    "host": "0.0.0.0",        # listen on all interfaces
    "port": 3000,             # listen port
    "max_connections": 10,    # listen backlog
    "max_message_bytes": 1 << 20,  # reject frames larger than 1 MiB
}

# Signal model (log-distance path loss)
SIGNAL_MODEL_CONFIG = {
    "reference_power_dbm": -40.0,    # expected RSSI at 1 m
    "path_loss_exponent": 2.5,
}

# Estimation configuration
ESTIMATION_CONFIG = {
    "min_anchors": 3,                   # known anchors needed for multilateration
    "trilateration_accuracy_m": 30.0,   # reported accuracy of a multilateration fix
    "single_anchor_accuracy_m": 500.0,  # reported accuracy of the single-anchor fallback
    "degeneracy_tolerance": 1e-6,       # relative determinant threshold
}

# Audit log
AUDIT_LOG_CONFIG = {
    "enabled": True,
    "path": "wifi_logs.csv",
}

# Known access-point registry source
REGISTRY_CONFIG = {
    "registry_path": None,    # JSON file; None uses KNOWN_AP_REGISTRY below
}

# Default known access points (BSSID -> lat/lng)
KNOWN_AP_REGISTRY = {
    "c2:5b:d8:16:91:fd": {"lat": 10.294033, "lng": 78.764267},   # main AP
    "50:91:e3:f7:a4:27": {"lat": 10.294500, "lng": 78.764800},   # ~70m NE
    "7a:8c:b5:7f:ec:e2": {"lat": 10.293700, "lng": 78.763900},   # ~100m SW
    "dc:ea:e7:34:0a:a2": {"lat": 10.295000, "lng": 78.764400},   # ~120m N
    "78:8c:b5:5f:ec:e4": {"lat": 10.293300, "lng": 78.765100},   # ~180m SE
}

# Logging configuration
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Virtual registry (for testing), anchors as east/north offsets in meters
VIRTUAL_REGISTRY_CONFIG = {
    "base_lat": 10.294033,
    "base_lon": 78.764267,
    "anchors": {
        "AP0": {"e": 0.0, "n": 0.0},
        "AP1": {"e": 60.0, "n": 0.0},
        "AP2": {"e": 30.0, "n": 52.0},
    }
}
