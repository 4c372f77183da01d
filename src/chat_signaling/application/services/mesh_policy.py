"""Origination tie-break for full-mesh group calls.

User ids are compared as plain Python strings, i.e. by Unicode code point,
with no case folding or normalization. For every pair of participants the
smaller id sends the offer and the larger id waits for it, so exactly one
side of each pair originates without a negotiation round.
"""


def should_originate(self_id: str, peer_id: str) -> bool:
    """Return True if ``self_id`` must send the offer to ``peer_id``."""
    return self_id != peer_id and self_id < peer_id


def peers_to_offer(self_id: str, participants: list[str]) -> list[str]:
    """Participants this user must originate an offer to, in roster order."""
    return [p for p in participants if should_originate(self_id, p)]
