"""Issue tracking for work orders: store, HTTP API and Streamlit front end."""
