import inspect
import time
from functools import wraps
from types import SimpleNamespace
from typing import Callable


type Arguments = SimpleNamespace
type Duration = float


def timeit(log_fn: Callable[[Arguments, Duration], None]):
    """
    Pass the duration of a successful call to `log_fn`, along with the call arguments
    (defaults included) as attributes, e.g. `args.epoch`. Failed calls are not logged.
    """
    def decorator[T](func: Callable[..., T]):
        signature = inspect.signature(func)

        @wraps(func)
        def wrapped(*args, **kwargs) -> T:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            duration = time.perf_counter() - started

            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            log_fn(SimpleNamespace(**bound.arguments), duration)
            return result

        return wrapped

    return decorator
