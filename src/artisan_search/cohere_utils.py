"""Cohere chat/embed client, provider adapters and JSON extraction from model text."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Protocol, TypeVar
import urllib.error
import urllib.request

from artisan_search.config import SearchConfig, _env_float, _env_int
from artisan_search.errors import MalformedProviderOutput, ProviderUnavailable


_LOGGER = logging.getLogger(__name__)
_PROVIDER_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="provider-call")

T = TypeVar("T")


class LanguageModel(Protocol):
    def complete(self, prompt: str) -> str: ...


class EmbeddingProvider(Protocol):
    def embed(self, texts: list[str]) -> list[list[float]]: ...


def run_with_timeout(operation: str, fn: Callable[[], T], timeout_seconds: float) -> T:
    safe_timeout = max(0.1, float(timeout_seconds))
    future = _PROVIDER_EXECUTOR.submit(fn)
    try:
        return future.result(timeout=safe_timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        raise ProviderUnavailable(f"{operation} timed out after {safe_timeout:g}s.") from exc
    except ProviderUnavailable:
        raise
    except Exception as exc:
        raise ProviderUnavailable(f"{operation} failed: {exc}") from exc


class CohereClient:
    def __init__(self, *, api_key: str, base_url: str, timeout_seconds: float, max_retries: int) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = max(1.0, float(timeout_seconds))
        self.max_retries = max(0, int(max_retries))

    def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = json.dumps(payload).encode("utf-8")
        endpoint = f"{self.base_url}{path}"
        request = urllib.request.Request(
            endpoint,
            data=body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            method="POST",
        )

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                    return json.loads(response.read().decode("utf-8"))
            except urllib.error.HTTPError as exc:
                response_body = exc.read().decode("utf-8", errors="ignore")
                retryable = exc.code in {408, 409, 429, 500, 502, 503, 504}
                if retryable and attempt < self.max_retries:
                    time.sleep(0.4 * (2**attempt))
                    continue
                raise ProviderUnavailable(
                    f"Cohere request failed ({exc.code}) at {path}: {response_body or exc.reason}"
                ) from exc
            except urllib.error.URLError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(0.4 * (2**attempt))
                    continue
                raise ProviderUnavailable(f"Cohere request failed at {path}: {exc.reason}") from exc

        raise ProviderUnavailable(f"Cohere request failed at {path}: {last_error}")

    @staticmethod
    def _extract_chat_text(payload: dict[str, Any]) -> str:
        message = payload.get("message")
        if not isinstance(message, dict):
            return ""

        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            parts: list[str] = []
            for chunk in content:
                if isinstance(chunk, dict):
                    text = chunk.get("text")
                    if isinstance(text, str):
                        parts.append(text)
            return "\n".join(parts).strip()
        return ""

    @staticmethod
    def _float_rows(rows: Any) -> list[list[float]]:
        out: list[list[float]] = []
        if not isinstance(rows, list):
            return out
        for row in rows:
            if isinstance(row, list):
                try:
                    out.append([float(value) for value in row])
                except (TypeError, ValueError):
                    continue
        return out

    @classmethod
    def _extract_embeddings(cls, payload: dict[str, Any]) -> list[list[float]]:
        embeddings = payload.get("embeddings")
        if isinstance(embeddings, list):
            return cls._float_rows(embeddings)
        if isinstance(embeddings, dict):
            return cls._float_rows(embeddings.get("float"))
        return []

    def chat_text(self, *, prompt: str, model: str, temperature: float = 0.2) -> str:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        response = self._post_json("/chat", payload)
        return self._extract_chat_text(response)

    def embed_texts(
        self,
        *,
        texts: list[str],
        model: str,
        input_type: str,
        output_dimension: int | None = None,
    ) -> list[list[float]]:
        if not texts:
            return []
        payload: dict[str, Any] = {
            "model": model,
            "texts": texts,
            "input_type": input_type,
            "embedding_types": ["float"],
        }
        if output_dimension:
            payload["output_dimension"] = int(output_dimension)
        response = self._post_json("/embed", payload)
        vectors = self._extract_embeddings(response)
        if len(vectors) != len(texts):
            raise MalformedProviderOutput("Cohere embedding response shape mismatch.")
        return vectors


def _strip_code_fence(text: str) -> str:
    raw = (text or "").strip()
    if raw.startswith("```"):
        first_newline = raw.find("\n")
        last_fence = raw.rfind("```")
        if first_newline != -1 and last_fence > first_newline:
            raw = raw[first_newline:last_fence].strip()
        else:
            raw = raw.strip("`").strip()
    return raw


def extract_json_payload(text: str, *, expect: type = dict) -> Any:
    """Pull the first JSON object (or array) out of free-form model text."""
    raw = _strip_code_fence(text)
    if not raw:
        raise MalformedProviderOutput("Model returned an empty response.")

    opener, closer = ("{", "}") if expect is dict else ("[", "]")
    candidates = [raw]
    start = raw.find(opener)
    end = raw.rfind(closer)
    if start != -1 and end > start:
        candidates.append(raw[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, expect):
            return parsed

    raise MalformedProviderOutput(f"Could not parse JSON {expect.__name__} from model response: {text[:200]}")


def _load_private_endpoint_overrides() -> dict[str, Any]:
    config_path = os.getenv("AS_COHERE_CONFIG_PATH", "").strip()
    if not config_path:
        return {}

    path = Path(config_path)
    if not path.exists() or not path.is_file():
        return {}

    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        _LOGGER.warning("Ignoring unreadable Cohere config override at %s.", config_path)
        return {}

    if not isinstance(parsed, dict):
        return {}
    return parsed


def make_client() -> CohereClient:
    overrides = _load_private_endpoint_overrides()

    api_key = os.getenv("COHERE_API_KEY", "").strip()
    if not api_key:
        api_key = str(overrides.get("api_key", "")).strip()
    if not api_key:
        raise ProviderUnavailable("COHERE_API_KEY is not set.")

    timeout_seconds = _env_float("AS_COHERE_HTTP_TIMEOUT_SECONDS", float(overrides.get("timeout_seconds", 20.0) or 20.0))
    max_retries = _env_int("AS_PROVIDER_MAX_RETRIES", int(overrides.get("max_retries", 1) or 1))
    base_url = os.getenv("COHERE_API_BASE_URL", "").strip() or str(
        overrides.get("base_url", "https://api.cohere.com/v2")
    ).strip()

    return CohereClient(
        api_key=api_key,
        base_url=base_url or "https://api.cohere.com/v2",
        timeout_seconds=timeout_seconds,
        max_retries=max_retries,
    )


class _LazyCohere:
    def __init__(self, client: CohereClient | None = None) -> None:
        self._client = client

    def _ensure_client(self) -> CohereClient:
        if self._client is None:
            self._client = make_client()
        return self._client


class CohereLanguageModel(_LazyCohere):
    def __init__(self, cfg: SearchConfig, client: CohereClient | None = None, temperature: float = 0.1) -> None:
        super().__init__(client)
        self.cfg = cfg
        self.temperature = temperature

    def complete(self, prompt: str) -> str:
        client = self._ensure_client()
        return run_with_timeout(
            "Chat completion request",
            lambda: client.chat_text(prompt=prompt, model=self.cfg.chat_model, temperature=self.temperature),
            self.cfg.provider_timeout_seconds,
        )


class CohereEmbeddingProvider(_LazyCohere):
    def __init__(self, cfg: SearchConfig, client: CohereClient | None = None) -> None:
        super().__init__(client)
        self.cfg = cfg

    def embed(self, texts: list[str]) -> list[list[float]]:
        client = self._ensure_client()
        return run_with_timeout(
            "Embedding request",
            lambda: client.embed_texts(
                texts=texts,
                model=self.cfg.embed_model,
                input_type=self.cfg.embed_input_type,
                output_dimension=self.cfg.embedding_dimension,
            ),
            self.cfg.provider_timeout_seconds,
        )
