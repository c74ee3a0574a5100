import re
import unicodedata

STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "can", "do", "does", "for", "from",
    "how", "in", "is", "it", "its", "of", "on", "or", "that", "the", "this", "to", "was",
    "what", "when", "where", "which", "who", "why", "with", "explain", "describe", "define",
}


def normalize_text(text: str) -> str:
    """
    Nettoie une chaîne : trim, unicodes normalisés, espaces réduits.
    """
    if not text:
        return ""
    text = text.strip()
    text = unicodedata.normalize("NFKC", text)
    text = re.sub(r"\s+", " ", text)
    return text


def tokenize(text: str) -> list[str]:
    """
    Mots en minuscules sans les mots vides (pour le classement des extraits).
    """
    words = re.findall(r"[a-z0-9]+", normalize_text(text).lower())
    return [w for w in words if w not in STOPWORDS and len(w) > 1]


def split_sentences(text: str) -> list[str]:
    parts = re.split(r"(?<=[.!?])\s+|\n+", text or "")
    return [normalize_text(p) for p in parts if len(normalize_text(p)) > 8]


def extract_json_block(text: str) -> str:
    """
    Isole le premier objet JSON d'une réponse de modèle (souvent entouré de texte ou ```json).
    """
    if not text:
        return ""
    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if fenced:
        return fenced.group(1)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return ""
    return text[start:end + 1]
