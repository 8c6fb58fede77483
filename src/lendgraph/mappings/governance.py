"""
Rules for governor and governance token events.

Proposal status only changes on receipt of the corresponding event, nothing is derived from
block numbers or timestamps. The first vote observed on a pending proposal marks it active.
"""

from lendgraph.constants import ZERO_ADDRESS
from lendgraph.database.models import ProposalStatus, ProposalTable, VoteSupport, VoteTable
from lendgraph.events import (
    DelegateChanged,
    DelegateVotesChanged,
    ProposalCanceled,
    ProposalCreated,
    ProposalExecuted,
    ProposalQueued,
    VoteCastAlpha,
    VoteCastBravo,
)
from lendgraph.exceptions import InvalidProposalTransition, LendgraphValueError
from lendgraph.identifiers import get_proposal_id, get_vote_id
from lendgraph.logging import logger
from lendgraph.mappings.context import EventHandlerContext
from lendgraph.repository import get_or_create_delegate

ALLOWED_TRANSITIONS: dict[ProposalStatus, frozenset[ProposalStatus]] = {
    ProposalStatus.PENDING: frozenset({ProposalStatus.ACTIVE, ProposalStatus.CANCELED}),
    ProposalStatus.ACTIVE: frozenset(
        {
            ProposalStatus.CANCELED,
            ProposalStatus.DEFEATED,
            ProposalStatus.SUCCEEDED,
            # A successful vote is implied by queueing
            ProposalStatus.QUEUED,
        }
    ),
    ProposalStatus.SUCCEEDED: frozenset({ProposalStatus.QUEUED, ProposalStatus.CANCELED}),
    ProposalStatus.QUEUED: frozenset(
        {ProposalStatus.EXECUTED, ProposalStatus.EXPIRED, ProposalStatus.CANCELED}
    ),
    ProposalStatus.CANCELED: frozenset(),
    ProposalStatus.DEFEATED: frozenset(),
    ProposalStatus.EXPIRED: frozenset(),
    ProposalStatus.EXECUTED: frozenset(),
}


def transition_proposal(proposal: ProposalTable, status: ProposalStatus) -> None:
    if status not in ALLOWED_TRANSITIONS[proposal.status]:
        raise InvalidProposalTransition(
            proposal_id=proposal.id,
            current=proposal.status.value,
            requested=status.value,
        )
    proposal.status = status


def _get_proposal(context: EventHandlerContext, proposal_id: int) -> ProposalTable:
    return context.repository.require(ProposalTable, get_proposal_id(proposal_id))


def process_proposal_created_event(context: EventHandlerContext[ProposalCreated]) -> None:
    event = context.event

    context.repository.create_record(
        ProposalTable(
            id=get_proposal_id(event.id),
            proposer=event.proposer.lower(),
            status=ProposalStatus.PENDING,
            description=event.description,
            targets=[target.lower() for target in event.targets],
            values=[str(value) for value in event.values],
            signatures=list(event.signatures),
            calldatas=[calldata.to_0x_hex() for calldata in event.calldatas],
            start_block=event.start_block,
            end_block=event.end_block,
            created_block=context.block_number,
            created_timestamp=context.block_timestamp,
            for_votes_mantissa=0,
            against_votes_mantissa=0,
            abstain_votes_mantissa=0,
        )
    )
    logger.info(f"Proposal {event.id} created by {event.proposer}")


def _record_vote(
    context: EventHandlerContext,
    voter: str,
    proposal_id: int,
    support: VoteSupport,
    votes: int,
    reason: str | None,
) -> None:
    proposal = _get_proposal(context, proposal_id)
    if proposal.status is ProposalStatus.PENDING:
        transition_proposal(proposal, ProposalStatus.ACTIVE)
    elif proposal.status is not ProposalStatus.ACTIVE:
        raise InvalidProposalTransition(
            proposal_id=proposal.id,
            current=proposal.status.value,
            requested=ProposalStatus.ACTIVE.value,
        )

    context.repository.create_record(
        VoteTable(
            id=get_vote_id(proposal_id, voter),
            proposal_id=proposal.id,
            voter=voter.lower(),
            support=support,
            votes_mantissa=votes,
            reason=reason,
            block_number=context.block_number,
            block_timestamp=context.block_timestamp,
        )
    )

    match support:
        case VoteSupport.FOR:
            proposal.for_votes_mantissa += votes
        case VoteSupport.AGAINST:
            proposal.against_votes_mantissa += votes
        case VoteSupport.ABSTAIN:
            proposal.abstain_votes_mantissa += votes
    context.repository.save(proposal)


def process_vote_cast_alpha_event(context: EventHandlerContext[VoteCastAlpha]) -> None:
    event = context.event
    _record_vote(
        context,
        voter=event.voter,
        proposal_id=event.proposal_id,
        support=VoteSupport.FOR if event.support else VoteSupport.AGAINST,
        votes=event.votes,
        reason=None,
    )


def process_vote_cast_bravo_event(context: EventHandlerContext[VoteCastBravo]) -> None:
    event = context.event
    try:
        support = VoteSupport(event.support)
    except ValueError:
        raise LendgraphValueError(message=f"Invalid vote support value {event.support}") from None

    _record_vote(
        context,
        voter=event.voter,
        proposal_id=event.proposal_id,
        support=support,
        votes=event.votes,
        reason=event.reason or None,
    )


def process_proposal_canceled_event(context: EventHandlerContext[ProposalCanceled]) -> None:
    proposal = _get_proposal(context, context.event.id)
    transition_proposal(proposal, ProposalStatus.CANCELED)
    proposal.canceled_block = context.block_number
    context.repository.save(proposal)


def process_proposal_queued_event(context: EventHandlerContext[ProposalQueued]) -> None:
    proposal = _get_proposal(context, context.event.id)
    transition_proposal(proposal, ProposalStatus.QUEUED)
    proposal.queued_block = context.block_number
    proposal.eta = context.event.eta
    context.repository.save(proposal)


def process_proposal_executed_event(context: EventHandlerContext[ProposalExecuted]) -> None:
    proposal = _get_proposal(context, context.event.id)
    transition_proposal(proposal, ProposalStatus.EXECUTED)
    proposal.executed_block = context.block_number
    context.repository.save(proposal)


def process_delegate_changed_event(context: EventHandlerContext[DelegateChanged]) -> None:
    """
    Process a DelegateChanged event, moving one delegator from the old delegate to the new one.
    The zero address stands for "no delegate" and is not tracked.
    """

    event = context.event

    if event.from_delegate != ZERO_ADDRESS:
        from_delegate = get_or_create_delegate(context.repository, event.from_delegate)
        from_delegate.delegator_count -= 1
        context.repository.save(from_delegate)

    if event.to_delegate != ZERO_ADDRESS:
        to_delegate = get_or_create_delegate(context.repository, event.to_delegate)
        to_delegate.delegator_count += 1
        context.repository.save(to_delegate)


def process_delegate_votes_changed_event(
    context: EventHandlerContext[DelegateVotesChanged],
) -> None:
    delegate = get_or_create_delegate(context.repository, context.event.delegate)
    delegate.delegated_votes_mantissa = context.event.new_balance
    context.repository.save(delegate)
