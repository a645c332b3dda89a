"""
Topic modeling sub-package with an interface for externally trained topic models, adapters for popular topic modeling
packages, topic assignment for new documents and common statistics for trained models.

The estimators themselves are optional dependencies: install with ``pip install tmcompound[sklearn]`` or
``pip install tmcompound[lda]`` to use the respective adapters.
"""

from . import assignment, model_stats, models
from .assignment import TopicAssignment, assign_topics, assign_topics_table, align_to_vocab
from .model_stats import TopicTerms, topic_terms, topic_terms_table
from .models import TopicModel, StaticTopicModel, SklearnTopicModel, LdaTopicModel
