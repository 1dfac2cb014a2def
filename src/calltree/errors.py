"""Exceptions raised by calltree. Every one of them ends the run."""


class CalltreeError(Exception):
    pass


class SearchToolMissing(CalltreeError):
    pass


class MalformedGrepLine(CalltreeError):
    pass


class CacheCorruptError(CalltreeError):
    pass


class InvalidPatternError(CalltreeError):
    pass
