import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config_loader import get_knowledge_base, get_knowledge_base_summary
from .logic.inference_engine import InferenceEngine
from .models import SearchFilterRequest

logger = logging.getLogger(__name__)

app = FastAPI(title="Candidate Search Inference API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_inference_engine() -> InferenceEngine:
    """Fresh engine per request over the shared, read-only catalogue."""
    return InferenceEngine.from_knowledge_base(get_knowledge_base())


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.get("/api/inference/rules")
async def list_inference_rules():
    """Summarize the loaded inference rule catalogue."""
    return get_knowledge_base_summary(get_knowledge_base())


@app.post("/api/search/inference")
def infer_search_constraints(
    request: SearchFilterRequest,
    engine: InferenceEngine = Depends(get_inference_engine),
):
    """Expand a search filter request with rule-derived constraints."""
    result = engine.run(request)
    logger.info(
        f"[API] Inference for request with {len(request.required_skills or [])} required skills: "
        f"{len(result.derived_constraints)} constraints"
    )
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("recommender_api.main:app", host="0.0.0.0", port=8000, reload=True)
