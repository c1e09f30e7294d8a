"""Keysym names, key-combos and the chord matcher."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

__all__ = ["KeyCombo", "KeyMatcher", "is_modifier", "normalize_keysym", "normalize_modifiers"]

MODIFIER_ALIASES = {
    "super": "super",
    "super_l": "super",
    "super_r": "super",
    "logo": "super",
    "mod4": "super",
    "win": "super",
    "ctrl": "ctrl",
    "control": "ctrl",
    "control_l": "ctrl",
    "control_r": "ctrl",
    "ctrl_l": "ctrl",
    "ctrl_r": "ctrl",
    "alt": "alt",
    "alt_l": "alt",
    "alt_r": "alt",
    "mod1": "alt",
    "shift": "shift",
    "shift_l": "shift",
    "shift_r": "shift",
}


def normalize_keysym(name: str) -> str:
    """Return the canonical form of a keysym name (modifiers collapse to their family)."""
    lowered = name.strip().lower()
    if not lowered:
        msg = "empty keysym name"
        raise ValueError(msg)
    return MODIFIER_ALIASES.get(lowered, lowered)


def is_modifier(name: str) -> bool:
    """Tell if `name` is a modifier keysym."""
    return name.strip().lower() in MODIFIER_ALIASES


def normalize_modifiers(modifiers: str | Iterable[str] | None) -> frozenset[str]:
    """Turn "Super+Shift", ["Super_L", "shift"] or None into a set of modifier names."""
    if modifiers is None:
        return frozenset()
    names = modifiers.split("+") if isinstance(modifiers, str) else list(modifiers)
    result = set()
    for name in names:
        if not name.strip():
            continue
        if not is_modifier(name):
            msg = f"{name!r} is not a modifier"
            raise ValueError(msg)
        result.add(normalize_keysym(name))
    return frozenset(result)


@dataclass(frozen=True)
class KeyCombo:
    """A set of modifiers held while an ordered list of keys is pressed."""

    modifiers: frozenset[str]
    keys: tuple[str, ...]

    @classmethod
    def parse(cls, modifiers: str | Iterable[str] | None, keys: str | Iterable[str]) -> KeyCombo:
        """Build a combo from script supplied names.

        Raises:
            ValueError: on unknown modifiers, modifier keys or an empty key list
        """
        key_list = [keys] if isinstance(keys, str) else list(keys)
        if not key_list:
            msg = "a key combo needs at least one key"
            raise ValueError(msg)
        for key in key_list:
            if is_modifier(key):
                msg = f"{key!r} is a modifier, not a trigger key"
                raise ValueError(msg)
        return cls(normalize_modifiers(modifiers), tuple(normalize_keysym(k) for k in key_list))

    def __str__(self) -> str:
        return "+".join([*sorted(self.modifiers), *self.keys])


@dataclass
class KeyMatcher:
    """Matches the resolved keysym stream against key-combos.

    Keys of a multi-key combo must be pressed in order while holding the same
    modifiers. A key which completed or advanced a combo is intercepted, so is
    its release.
    """

    suppressed: set[str] = field(default_factory=set)
    _sequence: tuple[str, ...] = ()
    _sequence_mods: frozenset[str] = frozenset()

    def reset(self) -> None:
        """Forget any pending multi-key sequence."""
        self._sequence = ()
        self._sequence_mods = frozenset()

    def feed(
        self, keysym: str, modifiers: str | Iterable[str] | None, pressed: bool, combos: Iterable[KeyCombo]
    ) -> tuple[KeyCombo | None, bool]:
        """Process one key event.

        Returns:
            (combo completed by this event or None, whether the event is intercepted)
        """
        name = normalize_keysym(keysym)
        if not pressed:
            if is_modifier(keysym):
                self.reset()
            if name in self.suppressed:
                self.suppressed.discard(name)
                return (None, True)
            return (None, False)

        if is_modifier(keysym):
            return (None, False)

        raw_mods = modifiers.split("+") if isinstance(modifiers, str) else list(modifiers or ())
        mods = normalize_modifiers(m for m in raw_mods if is_modifier(m))
        candidates = [c for c in set(combos) if c.modifiers == mods]
        attempts = [(*self._sequence, name)] if mods == self._sequence_mods and self._sequence else []
        attempts.append((name,))

        for attempt in attempts:
            exact = [c for c in candidates if c.keys == attempt]
            if exact:
                self.reset()
                self.suppressed.add(name)
                return (exact[0], True)
            if any(len(c.keys) > len(attempt) and c.keys[: len(attempt)] == attempt for c in candidates):
                self._sequence = attempt
                self._sequence_mods = mods
                self.suppressed.add(name)
                return (None, True)

        self.reset()
        return (None, False)
