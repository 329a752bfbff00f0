"""
Constants used throughout the occupancy detection system
"""

# Detection defaults
PERSON_LABEL = "person"
DEFAULT_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_DETECTION_INTERVAL_MS = 600
DEFAULT_MAX_PEOPLE_ALERT = 10
DEFAULT_MIN_PEOPLE_ALERT = 0

# Smoothing
SMOOTHING_BUFFER_SIZE = 3  # Raw counts kept in the ring buffer
SMOOTHING_HOLD_WINDOW_MS = 1000  # How long a zero reading is debounced

# History and statistics
HISTORY_SIZE = 30  # In-memory ring of recent results
RECENT_EVENTS_LIMIT = 50
STATS_WINDOW_HOURS = 24

# Camera
DEFAULT_CAMERA_TIMEOUT_MS = 3000
DEFAULT_RTSP_PORT = 554
DEFAULT_STREAM_PATH = "stream1"
DEFAULT_SNAPSHOT_PROXY_URL = "http://127.0.0.1:8080/snapshot"
JPEG_ENCODE_QUALITY = 90

# Tracking ID buckets (pixels)
TRACK_POSITION_BUCKET = 50
TRACK_SIZE_BUCKET = 100

# Monitoring
STATUS_REPORT_INTERVAL = 50  # Log status every N completed cycles

# Output
DEFAULT_JSON_DIR = "data"
SINK_QUEUE_SIZE = 1000  # Pending sink deliveries before new ones are dropped
SINK_DRAIN_TIMEOUT_S = 10  # How long close() waits for pending deliveries

# Environment variables
ENV_CAMERA_HOST = "OCCUPANCY_CAMERA_HOST"
ENV_CAMERA_USER = "OCCUPANCY_CAMERA_USER"
ENV_CAMERA_PASSWORD = "OCCUPANCY_CAMERA_PASSWORD"
ENV_SNAPSHOT_URL = "OCCUPANCY_SNAPSHOT_URL"
ENV_MODEL_FILE = "OCCUPANCY_MODEL_FILE"
