"""FIT codec built on fit-tool."""
