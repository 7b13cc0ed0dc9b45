"""Tone-keyed affirmation lines attached to every delivered reminder."""
import random
from typing import Dict, List, Optional

AFFIRMATIONS: Dict[str, List[str]] = {
    "motivational": [
        "You are moving the needle, one follow-up at a time.",
        "Consistency compounds. This reminder keeps your momentum alive.",
        "Small disciplined actions lead to big wins. Keep going.",
        "Your future self will thank you for this follow-up.",
        "Momentum builds with action. Take this step.",
    ],
    "professional": [
        "Timely follow-ups build trust. This one keeps your cadence sharp.",
        "Your reliability is an asset. Maintain it with this touchpoint.",
        "Strategic persistence beats silence. Stay proactive.",
        "Consistent follow-ups strengthen business relationships.",
        "Timely communication is a competitive advantage.",
    ],
    "playful": [
        "Ping time! Your future self is high-fiving you.",
        "A gentle nudge from your productivity fairy.",
        "Reminder fuel incoming. Let's keep the streak alive!",
        "Time to add this to your win column!",
        "Let's turn this reminder into a win!",
    ],
    "simple": [
        "Time to follow up.",
        "Here is your reminder.",
        "Don't forget this one.",
        "A quick nudge for you.",
    ],
}


def generate_affirmation(tone: Optional[str], rng: Optional[random.Random] = None) -> str:
    """Pick a line for the tone; unknown tones use the motivational set."""
    lines = AFFIRMATIONS.get(tone or "", AFFIRMATIONS["motivational"])
    return (rng or random).choice(lines)
