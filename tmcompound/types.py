"""
Module with the record types of the token stream model and common types used in type annotations throughout this
project.
"""

from dataclasses import dataclass
from numbers import Integral
from typing import Union, Optional, Tuple, Sequence

from ._common import REQUIRED_TOKEN_FIELDS, OPTIONAL_TOKEN_FIELDS


StrOrInt = Union[str, int]


@dataclass(frozen=True)
class Token:
    """
    A single annotated token as produced by an upstream annotation step (e.g. a POS tagger / lemmatizer).

    `position` is strictly increasing within a document and defines the token order. A missing `lemma` or `pos_tag`
    is represented as None. All other fields are required; a ``ValueError`` naming the offending token is raised if a
    field is missing or has the wrong type.
    """
    document_id: str
    paragraph_id: int
    sentence_id: int
    position: int
    surface_form: str
    lemma: Optional[str] = None
    pos_tag: Optional[str] = None

    def __post_init__(self):
        missing = [f for f in REQUIRED_TOKEN_FIELDS if getattr(self, f) is None]
        if missing:
            raise ValueError(f'token is missing required field(s) {", ".join(missing)}: {self!r}')

        if not isinstance(self.document_id, str):
            raise ValueError(f'field `document_id` must be a string, got {self.document_id!r}: {self!r}')

        for f in ('paragraph_id', 'sentence_id', 'position'):
            v = getattr(self, f)
            if not isinstance(v, Integral) or isinstance(v, bool):
                raise ValueError(f'field `{f}` must be an integer, got {v!r}: {self!r}')
            # normalize e.g. NumPy integers
            object.__setattr__(self, f, int(v))

        if not isinstance(self.surface_form, str):
            raise ValueError(f'field `surface_form` must be a string, got {self.surface_form!r}: {self!r}')

        for f in OPTIONAL_TOKEN_FIELDS:
            v = getattr(self, f)
            if v is not None and not isinstance(v, str):
                raise ValueError(f'field `{f}` must be a string or None, got {v!r}: {self!r}')


@dataclass(frozen=True)
class CompoundCandidate:
    """
    An accepted multi-word expression given as ordered sequence of token texts `phrase`. `length` must equal the number
    of elements in `phrase` and must be at least 2.
    """
    phrase: Tuple[str, ...]
    length: int

    def __post_init__(self):
        if isinstance(self.phrase, str) or not isinstance(self.phrase, Sequence):
            raise ValueError(f'`phrase` must be a sequence of strings, got {self.phrase!r}')

        # normalize to a tuple so that candidates are hashable and comparable
        object.__setattr__(self, 'phrase', tuple(self.phrase))

        if any(not isinstance(t, str) or not t for t in self.phrase):
            raise ValueError(f'all elements of `phrase` must be non-empty strings, got {self.phrase!r}')

        if self.length < 2:
            raise ValueError(f'compound candidate {self.phrase!r} has length {self.length}, but a length of at least '
                             f'2 is required')

        if self.length != len(self.phrase):
            raise ValueError(f'compound candidate {self.phrase!r} has {len(self.phrase)} elements, but its length '
                             f'is given as {self.length}')

    def __str__(self):
        return ' '.join(self.phrase)


@dataclass(frozen=True)
class RecodedTerm:
    """
    Output unit of the n-gram recoder: either a single original token or a compound term formed from several
    subsequent tokens of the same document. `term` is the recoded text, i.e. the selected field of a single token or
    the joined texts of all tokens that form the compound.
    """
    term: Optional[str]
    tokens: Tuple[Token, ...]

    @property
    def is_compound(self) -> bool:
        return len(self.tokens) > 1

    @property
    def length(self) -> int:
        return len(self.tokens)

    @property
    def document_id(self) -> str:
        return self.tokens[0].document_id

    @property
    def paragraph_id(self) -> int:
        return self.tokens[0].paragraph_id

    @property
    def sentence_id(self) -> int:
        return self.tokens[0].sentence_id

    @property
    def position(self) -> int:
        return self.tokens[0].position

    @property
    def start(self) -> int:
        """First position covered by this term."""
        return self.tokens[0].position

    @property
    def stop(self) -> int:
        """
        Last position covered by this term plus one, i.e. the position range is ``[start, stop)``. Positions may be
        gapped, so this range can include positions that don't occur in the token stream; use :attr:`positions` for
        the exact positions that form this term.
        """
        return self.tokens[-1].position + 1

    @property
    def positions(self) -> Tuple[int, ...]:
        """Positions of all tokens that form this term, in stream order."""
        return tuple(t.position for t in self.tokens)

    @property
    def surface_form(self) -> str:
        return self.term if self.is_compound else self.tokens[0].surface_form

    @property
    def lemma(self) -> Optional[str]:
        return None if self.is_compound else self.tokens[0].lemma

    @property
    def pos_tag(self) -> Optional[str]:
        return None if self.is_compound else self.tokens[0].pos_tag


TokenOrTerm = Union[Token, RecodedTerm]
