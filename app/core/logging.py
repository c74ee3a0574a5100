import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure le logger racine de l'application (console uniquement).
    Appelé une fois par create_app(); les modules utilisent logging.getLogger(__name__).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))

    # éviter les doublons quand create_app() est rappelé (tests)
    for handler in root.handlers[:]:
        if getattr(handler, "_exam_sarthi", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._exam_sarthi = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # boto est très bavard en DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
