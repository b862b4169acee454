"""
Native Voice Worker

Runs a pyttsx3 engine on the main thread of its own process. The macOS
driver only works from a process's main thread, so NativeTTSProvider
launches this module per call on darwin instead of using a worker thread.

Usage:
    python -m speechhub.services.tts.native_worker voices
    echo "Hello" | python -m speechhub.services.tts.native_worker speak --rate 200 [--voice ID]
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional


def list_engine_voices() -> List[Dict[str, Any]]:
    """Installed engine voices as JSON-safe dicts."""
    import pyttsx3

    engine = pyttsx3.init()
    try:
        voices = []
        for engine_voice in engine.getProperty("voices") or []:
            # espeak reports languages as bytes with a leading priority byte, e.g. b"\x05en-us"
            languages = [
                language.decode("utf-8", errors="ignore") if isinstance(language, bytes) else str(language)
                for language in getattr(engine_voice, "languages", None) or []
            ]
            gender = getattr(engine_voice, "gender", None)
            voices.append({
                "id": engine_voice.id,
                "name": getattr(engine_voice, "name", None) or engine_voice.id,
                "languages": languages,
                "gender": str(gender) if gender else None
            })
        return voices
    finally:
        engine.stop()


def run_engine(engine: Any, text: str, voice_id: Optional[str], rate: int) -> None:
    """Speak on an initialized engine and block until it finishes."""
    if voice_id:
        engine.setProperty("voice", voice_id)
    engine.setProperty("rate", rate)
    engine.say(text)
    engine.runAndWait()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="SpeechHub native voice worker")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("voices", help="Print installed voices as JSON")
    speak_parser = commands.add_parser("speak", help="Speak text read from stdin")
    speak_parser.add_argument("--rate", type=int, required=True)
    speak_parser.add_argument("--voice", default=None)
    args = parser.parse_args(argv)

    try:
        if args.command == "voices":
            sys.stdout.write(json.dumps(list_engine_voices()))
        else:
            import pyttsx3

            text = sys.stdin.buffer.read().decode("utf-8")
            run_engine(pyttsx3.init(), text, args.voice, args.rate)
    except Exception as e:
        sys.stderr.write(f"{type(e).__name__}: {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
