from .interactive import InteractiveVisualizer
