"""Boundary to the external AI collaborator."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Union, runtime_checkable

from pydantic import ValidationError

from schema_forge.exceptions import AIServiceError

from .models import RefinementRequest, RefinementResponse


@runtime_checkable
class RefinementCollaborator(Protocol):
    """Anything that can turn a refinement request into a response.

    Implementations call the AI service; they should raise ``AIServiceError``
    for transport or service failures.
    """

    async def refine(self, request: RefinementRequest) -> Union[RefinementResponse, Mapping[str, Any]]:
        ...


def parse_response(raw: Any) -> RefinementResponse:
    """Coerce a collaborator reply into ``RefinementResponse``.

    Raises:
        AIServiceError: If the reply is not an object in the expected format
    """
    if isinstance(raw, RefinementResponse):
        return raw
    if not isinstance(raw, Mapping):
        raise AIServiceError(f"Collaborator returned {type(raw).__name__}, expected an object")
    try:
        return RefinementResponse.model_validate(dict(raw))
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise AIServiceError(f"Collaborator response could not be parsed ({fields})") from exc


__all__ = ["RefinementCollaborator", "parse_response"]
