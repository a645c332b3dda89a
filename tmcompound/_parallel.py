"""
Internal module with helpers for distributing independent work items (e.g. documents) across worker processes using
a reusable process pool executor from the `loky package <https://github.com/joblib/loky/>`_.
"""

import logging
import os
from dataclasses import dataclass
from functools import partial, wraps
from inspect import signature
from typing import Dict, List, Callable, Optional, Any, Sized, TypeVar, cast

from loky import get_reusable_executor, ProcessPoolExecutor

from .utils import greedy_partitioning


WorkerFunc = TypeVar('WorkerFunc', bound=Callable[..., Any])

logger = logging.getLogger('tmcompound')


@dataclass
class ParallelTask:
    """A parallel execution task for a loky reusable process executor."""
    # loky reusable process executor or None for serial processing
    procexec: Optional[ProcessPoolExecutor]
    # assignments of data chunks in `data` to workers; ``workers_assignments[i]`` contains list of keys in `data` which
    # worker ``i`` is assigned to work on
    workers_assignments: List[List[str]]
    # dict mapping data chunk key to data chunk
    data: dict


def paralleltask(data: Dict[Any, Sized], max_workers: Optional[int] = None, workers_timeout: int = 10) \
        -> ParallelTask:
    """
    Generate a :class:`~ParallelTask` for the data chunks in `data`. If `max_workers` is None or 1, the task is
    executed serially in the main process. Otherwise the chunks are distributed to at most `max_workers` worker
    processes so that each worker gets approximately the same number of items (the size of each chunk is used as
    weight).

    :param data: dict mapping a chunk key (e.g. a document ID) to a sized data chunk
    :param max_workers: maximum number of worker processes or None for serial processing
    :param workers_timeout: idle timeout in seconds for the reusable worker processes
    :return: a :class:`~ParallelTask` object
    """
    if max_workers is not None and (not isinstance(max_workers, int) or max_workers < 1):
        raise ValueError('`max_workers` must be None or a strictly positive integer')

    if max_workers is None or max_workers == 1 or len(data) < 2:
        return ParallelTask(None, [list(data.keys())], data)

    n_workers = min(max_workers, len(data))
    assignments = greedy_partitioning({k: len(v) for k, v in data.items()}, k=n_workers, return_only_labels=True)
    procexec = get_reusable_executor(max_workers=n_workers, timeout=workers_timeout)

    return ParallelTask(procexec, assignments, data)


def parallelexec(collect_fn: Optional[Callable]) -> Callable[[WorkerFunc], Callable]:
    """
    Decorator function for parallel processing. Using this decorator on a function `fn` will run this function in
    parallel, each parallel instance processing only a chunk of the whole data. After the results of all parallel
    instances were collected, they're merged to a single data object using `collect_fn`.

    The function `fn` must accept a data chunk `data` *as first argument* which is always a dict and optionally
    additional positional and/or keyword arguments.

    When a function `fn` is decorated with this decorator, you must create a :class:`~ParallelTask` object, e.g. with
    :func:`~paralleltask`, and call `fn` with this object. If the task has no process executor, `fn` will be executed
    as usual in the main process.

    :param collect_fn: function to be called for combining the results from the parallel function executions; if this
                       is None, simply always return None
    :return: wrapped function
    """
    def deco_fn(fn: WorkerFunc) -> WorkerFunc:
        @wraps(fn)
        def inner_fn(task: ParallelTask, *args, **kwargs):
            if task.procexec and len(task.data) > 1:   # parallel processing enabled and possibly useful
                logger.debug(f'{os.getpid()}: distributing function {fn} for {len(task.data)} items to '
                             f'{len(task.workers_assignments)} workers')
                if args:
                    # map positional arguments to kwargs so that they don't overwrite the first argument (data chunk)
                    fn_argnames = list(signature(fn).parameters.keys())
                    if len(fn_argnames) <= len(args):
                        raise ValueError(f'function {fn} does not accept enough additional arguments')
                    kwargs.update({fn_argnames[i+1]: v for i, v in enumerate(args)})

                # each item in the list is the data chunk for one worker process
                workers_data = [{k: task.data[k] for k in itemkeys if k in task.data}
                                for itemkeys in task.workers_assignments]

                res = list(task.procexec.map(partial(fn, **kwargs), workers_data))
            else:
                logger.debug(f'{os.getpid()}: directly applying function {fn} to {len(task.data)} items')
                res = [fn(task.data, *args, **kwargs)]

            if collect_fn:
                return collect_fn(res)
            else:
                return None

        return cast(WorkerFunc, inner_fn)

    return deco_fn
