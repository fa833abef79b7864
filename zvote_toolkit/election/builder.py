"""
Election creation.

An election is built from a template typed in by the organizer: a fresh
seed is generated, one candidate key is derived from it per choice, the
reference data over the voting window is downloaded and its roots are
written into the election. The seed is what later lets anyone audit the
election, since it yields every candidate's viewing key.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from zvote_toolkit.crypto.interfaces import CryptoBackend
from zvote_toolkit.election.models import (
    Candidate,
    Election,
    ElectionData,
    parse_candidate_labels,
)
from zvote_toolkit.reference.source import BlockSource
from zvote_toolkit.reference.synchronizer import ReferenceSynchronizer
from zvote_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


@dataclass
class ElectionTemplate:
    name: str
    start: int
    end: int
    question: str
    choices: str
    signature_required: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElectionTemplate":
        try:
            return cls(
                name=data["name"],
                start=int(data["start"]),
                end=int(data["end"]),
                question=data["question"],
                choices=data["choices"],
                signature_required=bool(data.get("signature_required", False)),
            )
        except KeyError as e:
            raise ValueError(f"Election template is missing field {e}")


async def create_election(
    template: ElectionTemplate,
    backend: CryptoBackend,
    source: BlockSource,
    progress: Optional[Callable[[int], None]] = None,
) -> ElectionData:
    """
    Build a complete election from a template.

    Args:
        template: Organizer input; one choice per line
        backend: Crypto backend deriving the candidate keys
        source: Block source for the reference window
        progress: Called with each downloaded block height

    Returns:
        ElectionData holding the seed and the published election
    """
    labels = parse_candidate_labels(template.choices)
    if not labels:
        raise ValueError("An election needs at least one choice")

    seed = backend.keys.generate_seed()
    keys = backend.keys.candidate_keys(seed, len(labels))
    candidates = tuple(
        Candidate(address=key.address, label=label) for key, label in zip(keys, labels)
    )

    draft = Election(
        name=template.name,
        start_height=template.start,
        end_height=template.end,
        question=template.question,
        candidates=candidates,
        signature_required=template.signature_required,
    )

    state = await ReferenceSynchronizer(draft, source, progress=progress).run(verify=False)
    election = draft.with_reference(state.nf_root, state.cmx_root, state.frontier)
    _logger.info("Created election %s with %d candidates", election.id, len(candidates))
    return ElectionData(seed=seed, election=election)
