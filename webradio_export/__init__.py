"""Webradio export engine: profile resolution, artifact building and scheduled delivery."""
