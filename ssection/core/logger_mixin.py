import logging
from tabulate import tabulate

from typing import Any, Iterable, Sequence


class LoggerMixin:
    """
    A mixin class providing a configurable logger to any subclass.

    Every subclass gets its own logger named ``<module>.<ClassName>``. By
    default the logger only carries a ``NullHandler`` and keeps the level
    ``NOTSET``, so level and output are inherited from the parent loggers
    the host application configures. Passing ``debug=True`` attaches a
    formatted ``StreamHandler`` and lowers the level to DEBUG.

    Dataclasses that declare a ``debug`` field are initialized through their
    ``__post_init__``; plain classes through their ``__init__``.

    Parameters
    ----------
    *args : Any
        Positional arguments passed to the parent class (if any).
    debug : bool, optional
        Enables debug-level logging output if True. Default is False.
    **kwargs : Any
        Additional keyword arguments passed to the parent class (if any).

    Attributes
    ----------
    logger : logging.Logger
        A logger instance configured for the specific subclass.
    """

    _formatter = logging.Formatter(
        fmt=(
            "%(asctime)s [%(levelname)s] %(name)s.%(funcName)s():%(lineno)d "
            "- %(message)s"
        ),
        datefmt="%H:%M:%S",
    )

    def __init__(self, *args: Any, debug: bool = False, **kwargs: Any):
        self._logger = logging.getLogger(
            f"{self.__class__.__module__}.{self.__class__.__name__}"
        )

        if not self._logger.handlers:
            self._logger.addHandler(logging.NullHandler())

        if debug:
            if not any(isinstance(h, logging.StreamHandler)
                       for h in self._logger.handlers):
                sh = logging.StreamHandler()
                sh.setFormatter(self._formatter)
                self._logger.addHandler(sh)
            self._logger.setLevel(logging.DEBUG)

        self._logger.debug(
            "Instantiated %s(debug=%s)", self.__class__.__name__, debug
        )

    @property
    def logger(self) -> logging.Logger:
        """
        Returns the logger instance associated with this object.

        Returns
        -------
        logging.Logger
            The configured logger.
        """
        if not hasattr(self, "_logger"):
            # __init__ of the subclass has not run yet
            LoggerMixin.__init__(self)
        return self._logger

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        has_debug = "debug" in getattr(cls, "__annotations__", {})

        orig_post = getattr(cls, "__post_init__", None)
        if orig_post is not None and has_debug:
            def wrapped_post(self, *a, **k):
                LoggerMixin.__init__(self, debug=getattr(self, "debug", False))
                return orig_post(self, *a, **k)

            cls.__post_init__ = wrapped_post
            return

        orig_init = getattr(cls, "__init__", None)

        if orig_init is not LoggerMixin.__init__:

            def wrapped_init(self, *a, **k):
                LoggerMixin.__init__(self, debug=k.get("debug", False))
                if orig_init is not None:
                    return orig_init(self, *a, **k)

            cls.__init__ = wrapped_init


def table_rows(rows: Iterable[Sequence[Any]],
               headers: Sequence[str] = ("Property", "Value", "Unit")) -> str:
    """Render rows as a grid table for log output.

    Parameters
    ----------
    rows : iterable of sequences
        Table rows, each with one entry per header.
    headers : sequence of str, optional
        Column headers, defaults to ``("Property", "Value", "Unit")``.

    Returns
    -------
    str
        The rendered table.

    Examples
    --------
    >>> print(table_rows([("Area", "200", "mm²")]))
    +------------+---------+--------+
    | Property   | Value   | Unit   |
    +============+=========+========+
    | Area       | 200     | mm²    |
    +------------+---------+--------+
    """
    return tabulate([list(r) for r in rows], headers=list(headers),
                    tablefmt="grid", disable_numparse=True)
