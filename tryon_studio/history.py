"""Edit history for the customization step."""

from .errors import GatewayError, InvalidInput, OperationInProgress
from .logging_config import get_logger
from .services.gateway import GenerationGateway

logger = get_logger(__name__)


class EditHistory:
    """Linear version stack over one generated composite.

    ``versions[0]`` is the original generation and ``current()`` is always the
    last version, so the stack is never empty. Versions are kept in an
    immutable tuple; undo and reset rebind it to a prefix.
    """

    def __init__(self, original: str, gateway: GenerationGateway):
        self._versions: tuple[str, ...] = (original,)
        self._gateway = gateway
        self._busy = False

    @property
    def versions(self) -> tuple[str, ...]:
        return self._versions

    @property
    def original(self) -> str:
        return self._versions[0]

    @property
    def is_busy(self) -> bool:
        """True while an edit is outstanding."""
        return self._busy

    @property
    def can_undo(self) -> bool:
        return len(self._versions) > 1

    def __len__(self) -> int:
        return len(self._versions)

    def current(self) -> str:
        return self._versions[-1]

    async def apply_edit(self, instruction: str) -> str:
        """Edit the current version and append the result.

        Raises:
            InvalidInput: blank instruction.
            OperationInProgress: another edit is outstanding; nothing is queued.
            GatewayError: the service failed; the history is unchanged.
        """
        if not instruction or not instruction.strip():
            raise InvalidInput("Please describe the change you want.")
        if self._busy:
            raise OperationInProgress("A customization is already being applied.")

        self._busy = True
        try:
            result = await self._gateway.apply_edit(self.current(), instruction.strip())
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(str(e) or "Failed to apply customization.") from e
        finally:
            self._busy = False

        self._versions = self._versions + (result,)
        logger.info("Applied edit, history length %d", len(self._versions))
        return result

    def _ensure_idle(self) -> None:
        if self._busy:
            raise OperationInProgress("A customization is being applied.")

    def undo(self) -> str:
        """Drop the latest version unless only the original is left.

        Raises:
            OperationInProgress: an edit is outstanding.
        """
        self._ensure_idle()
        if self.can_undo:
            self._versions = self._versions[:-1]
        return self.current()

    def reset(self) -> str:
        """Return to the original generation. Not allowed while an edit is outstanding."""
        self._ensure_idle()
        self._versions = self._versions[:1]
        return self.current()
