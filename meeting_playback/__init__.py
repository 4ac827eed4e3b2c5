"""Scripted meeting playback: turn sequencing, audio provider chain, side effects, transcript."""
