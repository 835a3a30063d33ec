# Media upload queue
