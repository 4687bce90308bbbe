"""YouTube access, source resolution, hydration and profile persistence."""
