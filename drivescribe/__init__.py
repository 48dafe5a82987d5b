"""
Drive-to-Docs transcription pipeline.

This package lists audio files in a Google Drive folder, transcribes them,
writes each transcript into a new Google Doc and moves (or tags) the audio so
it is not processed twice.  The entrypoints live in :mod:`drivescribe.main`
(HTTP) and :mod:`drivescribe.cli` (command line).
"""
