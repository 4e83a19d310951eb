import os
import logging
from flask import Flask, request, jsonify
from flask_cors import CORS
import requests

# ----------------------
# Configuration
# ----------------------
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-preview-09-2025")
GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "*")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("gemini-proxy")

# ----------------------
# App Setup
# ----------------------
app = Flask(__name__)
CORS(app, origins=[FRONTEND_ORIGIN])

# ----------------------
# Helpers
# ----------------------
def generate_content_url() -> str:
    return f"{GOOGLE_API_BASE}/{GEMINI_MODEL}:generateContent"

def build_payload(user_query: str, system_prompt=None, use_grounding=False) -> dict:
    """Build the generateContent body. Unused features are omitted, not nulled."""
    payload = {
        "contents": [{"parts": [{"text": user_query}]}]
    }
    if use_grounding:
        payload["tools"] = [{"google_search": {}}]
    if system_prompt:
        payload["systemInstruction"] = {
            "parts": [{"text": system_prompt}]
        }
    return payload

def first_candidate_text(result):
    """Return candidates[0].content.parts[0].text, or None if the shape is off."""
    try:
        candidate = result["candidates"][0]
        text = candidate["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text or None

def extract_sources(candidate: dict) -> list:
    """Map grounding attributions to {uri, title}, dropping incomplete ones."""
    metadata = candidate.get("groundingMetadata") or {}
    sources = []
    for attribution in metadata.get("groundingAttributions") or []:
        web = (attribution or {}).get("web") or {}
        uri, title = web.get("uri"), web.get("title")
        if uri and title:
            sources.append({"uri": uri, "title": title})
    return sources

# ----------------------
# Error Handlers
# ----------------------
@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({"error": "Method Not Allowed"}), 405

# ----------------------
# Endpoints
# ----------------------
@app.route("/", methods=["GET"])
def health_check():
    return jsonify({"status": "proxy-running"}), 200

# No automatic OPTIONS: every non-POST method gets the JSON 405
@app.route("/api/gemini", methods=["POST"], provide_automatic_options=False)
def gemini_proxy():
    # Read per request, never cached at import
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        logger.error("GEMINI_API_KEY is not configured")
        return jsonify({"error": "API key is not configured on the server."}), 500

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    user_query = data.get("userQuery")
    if not user_query:
        return jsonify({"error": "userQuery is required."}), 400

    payload = build_payload(
        user_query,
        system_prompt=data.get("systemPrompt"),
        use_grounding=data.get("useGrounding"),
    )

    try:
        resp = requests.post(
            generate_content_url(),
            params={"key": api_key},
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT
        )
    except Exception as e:
        logger.exception("Server-side fetch error: %s", e)
        return jsonify({"error": f"Server error: {e}"}), 500

    if not 200 <= resp.status_code < 300:
        error_body = resp.text
        logger.error("Google API Error: %s", error_body)
        return jsonify({"error": f"Google API Error: {error_body}"}), resp.status_code

    try:
        result = resp.json()
    except ValueError:
        logger.error("Google API returned non-JSON body: %s", resp.text)
        return jsonify({"error": "The API returned an unexpected response."}), 500

    text = first_candidate_text(result)
    if text is None:
        logger.error("Invalid Google API response structure: %s", result)
        return jsonify({"error": "The API returned an unexpected response."}), 500

    try:
        sources = extract_sources(result["candidates"][0])
    except (AttributeError, TypeError):
        logger.error("Invalid grounding metadata in Google API response: %s", result)
        return jsonify({"error": "The API returned an unexpected response."}), 500

    return jsonify({"text": text, "sources": sources}), 200


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
