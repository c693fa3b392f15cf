SETTINGS = {
    "logging": {"level": "DEBUG"},
    "service": {"port": 3000},
    # Sweep every two minutes
    "THROTTLING": {"SWEEP_INTERVAL_SECONDS": 120.0},
}
