"""Product-development consulting agents coordinating over one RabbitMQ queue."""

__version__ = "0.1.0"
