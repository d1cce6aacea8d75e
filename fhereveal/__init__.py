__version__ = "0.1.0"
__title__ = "fhereveal"
__author__ = "fhereveal contributors"
__email__ = "fhereveal@users.noreply.github.com"
__url__ = "https://github.com/fhereveal/fhereveal"
__license__ = "MIT"
__description__ = "Access control and two-phase reveal engine for computations over encrypted values."
__copyright__ = "2026, fhereveal contributors"


from fhereveal.types import EncryptedType
from fhereveal.handles import Handle
from fhereveal.engine import Engine
from fhereveal.registry import RevealKey, RevealStatus
from fhereveal.kms import KMSVerifier, ThresholdDecryptionService
from fhereveal.utils import make_mock_environment
