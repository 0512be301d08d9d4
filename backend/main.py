"""Main entry point for the Ollama conversational relay API."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, CONVERSATIONS_FILE, AGENT_LOG_FILE, THOUGHTS_FILE
from logger import setup_logging
from models.api import ChatRequest, ChatResponse, LogEventRequest, ThoughtCreateRequest
from models.events import BACKEND_TIMEOUT
from services.conversation_store import ConversationStore
from services.event_log import AgentEventLog
from services.ollama_client import OllamaClient, BackendClientError
from services.orchestrator import ChatOrchestrator, InvalidInputError
from services.thought_pipeline import RuleBasedThoughtPipeline, SelfReviewSystem
from services.thought_store import ThoughtStore, InvalidThoughtError

# Initialize logging
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Ollama Relay",
    description="Conversational relay with durable history and streaming replies",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
conversation_store: ConversationStore = None
ollama_client: OllamaClient = None
event_log: AgentEventLog = None
orchestrator: ChatOrchestrator = None
thought_store: ThoughtStore = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global conversation_store, ollama_client, event_log, orchestrator, thought_store

    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL)

    logger.info("Initializing Ollama Relay services...")

    try:
        conversation_store = ConversationStore(CONVERSATIONS_FILE)
        conversation_store.load()
        logger.info("Initialized ConversationStore")

        ollama_client = OllamaClient()
        logger.info("Initialized OllamaClient")

        event_log = AgentEventLog(AGENT_LOG_FILE)
        logger.info("Initialized AgentEventLog")

        orchestrator = ChatOrchestrator(
            store=conversation_store,
            backend=ollama_client,
            thought_pipeline=RuleBasedThoughtPipeline(reviewer=SelfReviewSystem()),
            on_event=event_log.notify
        )
        logger.info("Initialized ChatOrchestrator")

        thought_store = ThoughtStore(THOUGHTS_FILE, on_event=event_log.notify)
        thought_store.load()
        logger.info("Initialized ThoughtStore")
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Release the backend connection pool."""
    if ollama_client is not None:
        await ollama_client.aclose()
    if event_log is not None:
        event_log.close()


@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.post("/api/chat")
async def chat_endpoint(request: ChatRequest):
    """
    Main chat endpoint.

    Returns the aggregated reply as JSON, or an SSE stream when the request
    body sets "stream": true.
    """
    if request.stream:
        return _stream_response(request)
    return await _chat(request)


@app.post("/api/chat/stream")
async def chat_stream_endpoint(request: ChatRequest):
    """
    Streaming chat endpoint.

    Streams the response as Server-Sent Events (SSE):
    - data: {type: "content", content: "...", thoughts: [...], conversationId: "..."}
    - data: {type: "done", content: "[DONE]", sentiment: {...}, conversationId: "..."}
    - data: {type: "error", error: {code, message, details}, conversationId: "..."}
    """
    return _stream_response(request)


@app.post("/api/ollama", response_model=ChatResponse)
async def ollama_endpoint(request: ChatRequest):
    """Non-streaming chat endpoint kept for older clients."""
    return await _chat(request)


@app.post("/api/log")
async def log_endpoint(request: LogEventRequest):
    """Append a client-side agent event to the agent log."""
    try:
        await event_log.arecord(request.type, request.content, request.meta)
    except OSError as e:
        logger.error(f"Failed to write agent log: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail={"error": "Failed to write log"})
    return {"status": "logged"}


def build_envelope(status: int, data: Any) -> dict:
    """Response body shared by the thoughts endpoints."""
    return {
        "status": status,
        "data": data,
        "success": status in (200, 201),
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


@app.get("/api/thoughts")
async def get_thoughts(sender: Optional[str] = None):
    """List posted thoughts, newest first."""
    thoughts = [thought.to_dict() for thought in thought_store.get_all(sender)]
    logger.info(f"Fetched {len(thoughts)} thoughts")
    return build_envelope(200, thoughts)


@app.post("/api/thoughts")
async def post_thought(request: ThoughtCreateRequest):
    """Post a thought of at most THOUGHT_MAX_CHARS characters."""
    try:
        record = await thought_store.create(request.sender, request.content)
    except InvalidThoughtError as e:
        logger.warning(f"Rejected thought: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})
    except OSError:
        raise HTTPException(status_code=500, detail={"error": "Failed to save thought"})
    return JSONResponse(status_code=201, content=build_envelope(201, record.to_dict()))


async def _chat(request: ChatRequest):
    try:
        result = await orchestrator.orchestrate(
            request.message,
            request.mode or "general",
            request.conversation_id,
            request.preferences or {},
            wants_stream=False
        )
        return ChatResponse.model_validate(result.to_dict())
    except InvalidInputError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except BackendClientError as e:
        # Handle backend errors with structured error response
        logger.error(f"Backend error: {e.error.message}")
        status_code = 504 if e.error.code == BACKEND_TIMEOUT else 503
        return JSONResponse(status_code=status_code, content={"error": e.error.to_dict()})
    except Exception as e:
        # Handle unexpected errors
        logger.error(f"Unexpected error processing chat: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


def _stream_response(request: ChatRequest):
    try:
        payloads = orchestrator.orchestrate(
            request.message,
            request.mode or "general",
            request.conversation_id,
            request.preferences or {},
            wants_stream=True
        )
    except InvalidInputError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    async def generate_stream():
        """Generator function for streaming response."""
        try:
            async for payload in payloads:
                yield f"data: {json.dumps(payload)}\n\n".encode("utf-8")
        except Exception as e:
            logger.error(f"Unexpected error during streaming: {e}", exc_info=True)
            error_data = {
                "type": "error",
                "error": {
                    "code": "UNKNOWN_ERROR",
                    "message": f"Internal server error: {str(e)}"
                }
            }
            yield f"data: {json.dumps(error_data)}\n\n".encode("utf-8")
        finally:
            await payloads.aclose()

    return StreamingResponse(
        generate_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"  # Disable buffering in nginx
        }
    )


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Ollama Relay API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
