"""Client-side synchronization engine for lecture video quizzes."""
