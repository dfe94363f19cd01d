"""OpenAperture API integration: authentication and workflow resources."""
