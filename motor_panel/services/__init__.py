# Service layer for the motor panel
# - bridge:        rosbridge connection manager and the three motor service handles
# - poller:        fixed-interval discovery/position poll task
# - panel_session: per-page controller applying state transitions
