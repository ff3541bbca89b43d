# Synthetic Action generator used to seed a development cluster
