from eventproof.models.event import Event, EventState, OrganizerProfile
from eventproof.models.registration import PassIssuance, Registration
from eventproof.models.attendance import AttendanceRecord, AttendanceState, Capability, CapabilityKind
from eventproof.models.nft import AttendanceNFT, NFTKind
from eventproof.models.rating import Rating
from eventproof.models.escrow import Escrow
from eventproof.models.airdrop import Airdrop, AirdropClaim, DistributionType
from eventproof.models.ledger import AuditEntry, Transfer, TransferKind
