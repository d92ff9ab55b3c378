"""Constants for maritime event detection."""

# Coordinate validation ranges
LAT_MIN = -90.0
LAT_MAX = 90.0
LON_MIN = -180.0
LON_MAX = 180.0

# Unit conversions
KNOTS_TO_MPS = 0.514444
METERS_PER_NM = 1852.0
EARTH_RADIUS_M = 6371008.8
METERS_PER_DEG_LAT = 111320.0  # Approximate, good enough for bucketing

# WGS84 ellipsoid
WGS84_A = 6378137.0  # semi-major axis in meters
WGS84_E2 = 0.00669437999014  # first eccentricity squared

# Docking defaults
DOCKING_SPEED_THRESHOLD_KN = 0.5  # 1.0 kn also appears in older queries
DOCKING_DWELL_SECONDS = 1800  # 30 minutes
UNDOCK_DISTANCE_METERS = 2000.0
UNDOCK_WINDOW_SECONDS = 900  # 15 minutes
HYSTERESIS_GRACE_SECONDS = 120

# Idle defaults
IDLE_SPEED_THRESHOLD_KN = 0.5
IDLE_DURATION_SECONDS = 3600
IDLE_EXCURSION_TOLERANCE_SECONDS = 60

# Collision defaults
COLLISION_PROXIMITY_METERS = 100.0
COLLISION_HORIZON_SECONDS = 300
PROXIMITY_SEARCH_METERS = 1000.0
ACTIVE_WINDOW_SECONDS = 600  # 10 minutes

# State store defaults
JITTER_TOLERANCE_SECONDS = 5.0
DEFAULT_SHARD_COUNT = 4
SHARD_QUEUE_SIZE = 10000
VESSEL_EVICTION_TIMEOUT = 86400  # 24 hours
EVICTION_SWEEP_SECONDS = 300

# Sink defaults
SINK_MAX_PENDING = 50000
SINK_BATCH_SIZE = 500
SINK_FLUSH_INTERVAL = 1.0
SINK_DEDUP_CAPACITY = 200000

# Loader column name variations
REQUIRED_COLUMNS = ["MMSI", "BaseDateTime", "LAT", "LON", "SOG"]
COLUMN_ALIASES = {
    "mmsi": "MMSI",
    "timestamp": "BaseDateTime",
    "basedatetime": "BaseDateTime",
    "time": "BaseDateTime",
    "lat": "LAT",
    "latitude": "LAT",
    "lon": "LON",
    "lng": "LON",
    "longitude": "LON",
    "sog": "SOG",
    "speed": "SOG",
    "cog": "COG",
    "course": "COG",
    "heading": "Heading",
    "status": "Status",
    "nav_status": "Status",
}
LOADER_CHUNK_SIZE = 100_000

# Error messages
ERROR_INVALID_COORDINATES = "Invalid coordinates: lat={}, lon={}"
ERROR_INVALID_SPEED = "Invalid speed: {}"
ERROR_MISSING_FIELD = "Missing required field: {}"
ERROR_STALE_REPORT = "Report for {} at {} is older than last seen {} beyond {}s jitter"
