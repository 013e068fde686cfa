from copilot_gateway.knowledge.in_memory import SAMPLE_CORPUS, InMemoryKnowledgeBase
from copilot_gateway.knowledge.interface import DocChunk, KnowledgeBase

__all__ = ["DocChunk", "InMemoryKnowledgeBase", "KnowledgeBase", "SAMPLE_CORPUS"]
