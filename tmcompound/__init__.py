"""
tmcompound – compound-term recoding and document-term matrices for topic modeling

Turns a stream of annotated tokens into a filtered, topic-model-ready sparse document-term matrix, optionally recoding
runs of tokens into compound multi-word terms before counting.
"""

import logging

__title__ = 'tmcompound'
__version__ = '0.1.0'
__license__ = 'Apache License 2.0'

logger = logging.getLogger(__title__)
logger.addHandler(logging.NullHandler())
logger.setLevel(logging.WARNING)   # set default level


from . import bow, recode, tokenstream, topicmod, types, utils
