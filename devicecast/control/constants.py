# The remote executor never honours more than this per attempt.
MAX_ATTEMPT_TIMEOUT_MS = 10_000
# Added to an attempt's timeout before the local side gives up on a response.
RESPONSE_SLACK_MS = 10_000

DEFAULT_STEP_DURATION_MS = 16
MIN_GESTURE_DURATION_MS = 500

WAIT_FOR_POLL_INTERVAL_MS = 100
DEPENDENT_FIELD_TIMEOUT_MS = 3_000
DEPENDENT_FIELD_POLL_INTERVAL_MS = 10

ANIMATION_SETTLE_TIMEOUT_MS = 2_000
DEFAULT_IMAGE_THRESHOLD = 0.001
DEFAULT_IMAGE_THRESHOLD_DURATION_MS = 1_000

# Fixed delays around remote operations that report no completion event.
TYPE_TEXT_PRE_DELAY_MS = 1_000
TYPE_TEXT_POST_DELAY_MS = 500
ROTATE_SETTLE_DELAY_MS = 1_000
RESTART_APP_DELAY_MS = 1_000

SPRINGBOARD_APP_ID = "com.apple.springboard"

ADB_SHELL_COMMAND_TEMPLATE = (
    "ssh -fN -o StrictHostKeyChecking=no -oHostKeyAlgorithms=+ssh-rsa "
    "-p {port} {user}@{hostname} -L6000:{destination}:{forward_port} "
    "&& adb connect localhost:6000"
)
