"""E-mail messages and sending them over SMTP."""