from fhereveal.contracts.base import Ledger, Phase, RevealingContract
from fhereveal.contracts.auction import BlindAuction
from fhereveal.contracts.voting import HiddenVoting
from fhereveal.contracts.lottery import EncryptedLottery
from fhereveal.contracts.escrow import EncryptedEscrow, EscrowState
from fhereveal.contracts.kyc import PrivateKYC
