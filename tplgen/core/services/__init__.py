"""
Generation services — discovery, rendering, formatting, writing, watching.

Each service is a plain module; the pipeline and watch coordinator are
the only ones that hold state, and that state is passed in explicitly.
"""
