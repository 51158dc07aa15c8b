"""
Utility functions for concurrent.futures.

Batch anonymization submits one document per task. With an executor the tasks
run concurrently; without one they run lazily in the calling thread, through
the same Future-like interface.
"""

from concurrent.futures import Executor, Future
from typing import Any, Callable, Iterable, Optional, Union

_NOT_RUN = object()


class InProcessResult:
    """
    A minimal stand-in for concurrent.futures.Future that runs in the calling thread.

    The function runs on the first call to result(); later calls return the
    same value (or raise the same exception) without running it again.

    Parameters
    ----------
    func : callable
        The function to execute
    args : tuple
        Positional arguments to pass to the function
    kwargs : dict
        Keyword arguments to pass to the function
    """

    def __init__(
        self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self._result: Any = _NOT_RUN
        self._exception: Optional[BaseException] = None
        self._cancelled = False

    def result(self) -> Any:
        """
        Execute the function if needed and return its result.

        Raises
        ------
        Exception
            Whatever the function raised.
        RuntimeError
            If the task was cancelled before it ran.
        """
        if self._cancelled:
            raise RuntimeError("InProcessResult was cancelled")
        if self._exception is not None:
            raise self._exception
        if self._result is _NOT_RUN:
            try:
                self._result = self.func(*self.args, **self.kwargs)
            except Exception as exc:
                self._exception = exc
                raise
        return self._result

    def done(self) -> bool:
        return self._cancelled or self._exception is not None or self._result is not _NOT_RUN

    def cancel(self) -> bool:
        """Cancel the task; only possible before it ran."""
        if self._result is not _NOT_RUN or self._exception is not None:
            return False
        self._cancelled = True
        return True


def make_future(
    executor: Optional[Executor], func: Callable[..., Any], *args: Any, **kwargs: Any
) -> Union[Future, InProcessResult]:
    """
    Create a Future-like object for concurrent or deferred execution.

    Parameters
    ----------
    executor : Executor or None
        If not None, the function will execute concurrently using this executor.
        If None, the function will execute in the calling thread when result() is called.
    func : callable
        The function to execute.
    *args : Any
        Positional arguments to pass to the function.
    **kwargs : Any
        Keyword arguments to pass to the function.

    Returns
    -------
    Union[Future, InProcessResult]
        A Future-like object that will execute the function when its result() method is called.
    """
    if executor is not None:
        return executor.submit(func, *args, **kwargs)
    return InProcessResult(func, args, kwargs)


def gather(futures: Iterable[Union[Future, InProcessResult]]) -> list[Any]:
    """Results of ``futures`` in submission order; the first exception propagates."""
    return [future.result() for future in futures]
