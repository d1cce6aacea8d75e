from petlib.ec import EcGroup

DEFAULT_GROUP = EcGroup()

# Handle identifiers: 30 hash bytes, one type-code byte, one version byte.
HANDLE_ID_LENGTH = 32
HANDLE_HASH_LENGTH = 30
HANDLE_VERSION = 0

# Clear values are encoded as fixed-size big-endian words.
CLEAR_VALUE_WORD_SIZE = 32

DEFAULT_KMS_NODES = 4
DEFAULT_KMS_THRESHOLD = 3

# Domain separation tags.
HANDLE_TAG = b"fhereveal:handle:v0"
DECRYPTION_TAG = b"fhereveal:decryption:v0"
INPUT_TAG = b"fhereveal:input:v0"
SIGNATURE_TAG = b"fhereveal:schnorr:v0"

PROOF_FORMAT_VERSION = 1
