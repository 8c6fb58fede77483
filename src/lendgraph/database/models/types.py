from typing import Annotated

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import mapped_column

# Entity keys are derived by lendgraph.identifiers, the longest being an account-vtoken
# transaction key (address, hash and log index)
PrimaryKeyEntityId = Annotated[
    str,
    mapped_column(String(160), primary_key=True),
]
ForeignKeyAccountId = Annotated[
    str,
    mapped_column(ForeignKey("accounts.id"), index=True),
]
ForeignKeyMarketId = Annotated[
    str,
    mapped_column(ForeignKey("markets.id"), index=True),
]
ForeignKeyPoolId = Annotated[
    str,
    mapped_column(ForeignKey("pools.id"), index=True),
]
ForeignKeyAccountVTokenId = Annotated[
    str,
    mapped_column(ForeignKey("account_vtokens.id"), index=True),
]
ForeignKeyRewardsDistributorId = Annotated[
    str,
    mapped_column(ForeignKey("rewards_distributors.id"), index=True),
]
ForeignKeyProposalId = Annotated[
    str,
    mapped_column(ForeignKey("proposals.id"), index=True),
]
