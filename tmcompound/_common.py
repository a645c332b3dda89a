"""
Common constants used as default parameter values throughout this package.
"""

#: string used to join the texts of tokens that form a compound term
DEFAULT_COMPOUND_GLUE = ' '

#: string used to join several grouping levels to a single row label
DEFAULT_KEY_GLUE = '-'

#: token field that is compared against compound candidates and counted as term by default
DEFAULT_TERM_FIELD = 'surface_form'

#: token fields that may be used as grouping levels, from coarsest to finest
GROUPING_LEVELS = ('document_id', 'paragraph_id', 'sentence_id')

#: token fields that must be present in each input record
REQUIRED_TOKEN_FIELDS = ('document_id', 'paragraph_id', 'sentence_id', 'position', 'surface_form')

#: token fields that may be missing (None) in an input record
OPTIONAL_TOKEN_FIELDS = ('lemma', 'pos_tag')

DEFAULT_TOPIC_NAME_FMT = 'topic_{i1}'
