"""Anodium scripting - script bindings for a Wayland compositor.

A Python script binds key chords, reacts to output lifecycle events and
declares overlay widgets. The engine runs it against a compositor host and
routes host events to its callbacks on a single asyncio loop.
"""
