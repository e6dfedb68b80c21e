from typing import Protocol


class AppHooks(Protocol):
    """
    Protocol for application hooks to observe and steer rule execution.
    This can be implemented by the calling application (CLI, service, notebook)
    to receive progress and to request a cooperative stop.

    Methods:
        report_step(...): Progress messages from a running rule.
        stop_requested() -> bool: Whether the caller wants the rule to stop early.
    """
    def report_step(self, info: str = "", target: int = None, reset_counter: bool = False, plus_step: int = 1) -> None:
        """
        Report progress from a running rule.

        Args:
            info (str): Progress message.
            target (int): Target count for progress.
            reset_counter (bool): Whether to reset the counter.
            plus_step (int): Incremental step count.
        """
        pass

    def stop_requested(self) -> bool:
        """
        Check if a stop has been requested by the caller.

        Returns:
            bool: True if stop is requested, False otherwise.
        """
        return False
