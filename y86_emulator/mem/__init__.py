# Bounded memory window.
