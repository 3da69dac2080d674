from typing import List, Optional, Sequence
import logging

from models import Split, SplitInput, SplitType
from money import amounts_match

logger = logging.getLogger(__name__)


class SplitValidationError(ValueError):
    """Raised when an expense's splits cannot be accepted"""


def equal_splits(amount: float, member_ids: Sequence[str]) -> List[Split]:
    """Give every member the same share of the amount.

    Shares are left unrounded so they always sum back to the total.
    """
    if not member_ids:
        raise SplitValidationError("Cannot split an expense among zero members")

    per_person = amount / len(member_ids)
    percentage = (1 / len(member_ids)) * 100
    return [
        Split(user_id=member_id, amount=per_person, percentage=percentage)
        for member_id in member_ids
    ]


def custom_splits(
    amount: float,
    splits: Sequence[SplitInput],
    member_ids: Optional[Sequence[str]] = None,
) -> List[Split]:
    """Accept caller-supplied shares if they add up to the amount.

    With ``member_ids`` given, every share must name a distinct member.
    """
    user_ids = [split.user_id for split in splits]
    if len(set(user_ids)) != len(user_ids):
        raise SplitValidationError("Each member may appear only once in the splits")
    if member_ids is not None:
        outsiders = [uid for uid in user_ids if uid not in member_ids]
        if outsiders:
            logger.warning(f"Rejected custom split naming non-members {outsiders}")
            raise SplitValidationError("Split users must be members of the group")

    total_split = sum(split.amount for split in splits)
    if not amounts_match(total_split, amount):
        logger.warning(f"Rejected custom split: shares total {total_split}, expense is {amount}")
        raise SplitValidationError("Split amounts must equal the total amount")

    return [
        Split(
            user_id=split.user_id,
            amount=split.amount,
            percentage=(split.amount / amount) * 100,
        )
        for split in splits
    ]


def build_splits(
    amount: float,
    split_type: SplitType,
    member_ids: Sequence[str],
    splits: Optional[Sequence[SplitInput]] = None,
) -> List[Split]:
    if split_type == SplitType.EQUAL:
        return equal_splits(amount, member_ids)
    if split_type == SplitType.CUSTOM and splits:
        return custom_splits(amount, splits, member_ids)
    raise SplitValidationError("Invalid split type or splits data")
