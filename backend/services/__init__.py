"""Services for the Ollama conversational relay."""
from .sentiment_scorer import SentimentScorer
from .thought_pipeline import ThoughtPipeline, RuleBasedThoughtPipeline, NoThoughts, SelfReviewSystem
from .history_summarizer import HistorySummarizer
from .prompt_builder import PromptBuilder, temperature_for
from .stream_transcoder import NDJSONLineBuffer, StreamTranscoder
from .ollama_client import OllamaClient, BackendReply, BackendError, BackendClientError
from .conversation_store import ConversationStore
from .event_log import AgentEventLog
from .thought_store import ThoughtStore, InvalidThoughtError, validate_thought_content
from .orchestrator import ChatOrchestrator, ChatResult, InvalidInputError

__all__ = ['SentimentScorer', 'ThoughtPipeline', 'RuleBasedThoughtPipeline', 'NoThoughts', 'SelfReviewSystem', 'HistorySummarizer', 'PromptBuilder', 'temperature_for', 'NDJSONLineBuffer', 'StreamTranscoder', 'OllamaClient', 'BackendReply', 'BackendError', 'BackendClientError', 'ConversationStore', 'AgentEventLog', 'ThoughtStore', 'InvalidThoughtError', 'validate_thought_content', 'ChatOrchestrator', 'ChatResult', 'InvalidInputError']
